# routes/auth.py
from fastapi import HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
import logging

import config
from database import get_db, persistence_guard

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Tokens are issued by the account service; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

async def get_user_by_id(db, user_id: str):
    async with persistence_guard("load user"):
        user = await db.users.find_one({"id": user_id}, {"_id": 0})
    if not user:
        logger.warning(f"User not found for id: {user_id}")
    return user

async def get_current_user(token: str = Depends(oauth2_scheme), db=Depends(get_db)):
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError as e:
        logger.error(f"JWTError: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("id")
    role = payload.get("role")
    if not user_id or not role:
        logger.error("Invalid token: Missing user_id or role")
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return {"id": user["id"], "role": user["role"], "name": user.get("name"), "email": user.get("email")}

async def require_operator(current_user: dict = Depends(get_current_user)):
    if current_user["role"] not in config.OPERATOR_ROLES:
        raise HTTPException(status_code=403, detail="Only administrators can view proctoring reports")
    return current_user
