# Schemas package (re-export feature modules for stable imports)
from .auth.auth import *
from .chat.chat import *
from .common.common import *
