from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class AnalyzeRequest(BaseModel):
    query: str = ""


class EconomicDataRequest(BaseModel):
    indicator_code: str = Field("", alias="indicatorCode")
    country_code: Optional[str] = Field(None, alias="countryCode")
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")

    model_config = {"populate_by_name": True}


class CompareRequest(BaseModel):
    symbols: Optional[List[str]] = None
    timespan: str = "day"


class PersonalizedInsightsRequest(BaseModel):
    # Any: a non-list watchlist is answered with 400, not a validation error
    watchlist: Any = None
    user_id: Optional[Any] = Field(None, alias="userId")

    model_config = {"populate_by_name": True}


class Article(BaseModel):
    title: str = ""
    description: Optional[str] = ""
    url: str = ""


class ResponseEnvelope(BaseModel):
    summary: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    historical_stock_data: Optional[List[Dict[str, Any]]] = Field(None, alias="historicalStockData")
    historical_economic_data: Optional[List[Dict[str, Any]]] = Field(None, alias="historicalEconomicData")
    articles: Optional[List[Article]] = None

    model_config = {"populate_by_name": True}


class ErrorMsg(BaseModel):
    error: str
    details: Optional[str] = None
