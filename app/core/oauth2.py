from fastapi.security import OAuth2PasswordBearer

# Tokens are issued by the identity provider; this only reads the Authorization header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")
