from fastapi import APIRouter, Depends, HTTPException
from showroom.auth import Principal, check_credentials, create_access_token, get_principal
from showroom.application.schemas import LoginRequest, TokenRead
from shared.core import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=TokenRead)
def login(payload: LoginRequest):
    if not check_credentials(payload.username, payload.password):
        logger.info("Login refused: invalid credentials")
        raise HTTPException(status_code=401, detail="Invalid username or password.")
    logger.info(f"Login accepted for {payload.username}")
    return TokenRead(access_token=create_access_token(payload.username))

@router.post("/logout")
def logout(principal: Principal = Depends(get_principal)):
    # tokens are stateless; the client drops its copy
    logger.info(f"Logout for {principal.user_id}")
    return {"success": True, "message": "Logged out."}
