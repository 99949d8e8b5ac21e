"""Auto-import builtin tool modules to trigger @register_tool decorators."""
from . import quote
from . import history
from . import news
from . import macro
from . import regional
from . import image
