from .user import User, UserRole
from .refresh_token import RefreshToken
