# Routers package
from . import auth_router
from . import chat_router
from . import chat_socket
