"""HTTP route definitions for the credential service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, EmailStr, Field

from ..domain.account import Account
from ..domain.errors import (
    Conflict,
    CredentialError,
    InvalidCredentials,
    NotFound,
)
from ..domain.service import CredentialService
from ..security.session import current_account

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users")


class PublicProfile(BaseModel):
    """Account fields returned with a freshly issued session token."""

    email: EmailStr
    status: str
    role: str

    @classmethod
    def from_domain(cls, account: Account) -> "PublicProfile":
        return cls(**account.public_profile())


class AccountResponse(BaseModel):
    """Serialised representation of an `Account` aggregate, minus its secrets."""

    account_id: str
    email: EmailStr
    status: str
    role: str
    first_name: str | None = None
    last_name: str | None = None
    tax_id: str | None = None
    company_name: str | None = None
    company_tax_id: str | None = None
    company_address: str | None = None
    is_self_employed: bool = False
    logo: str | None = None
    created_at: str | None = None

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            account_id=account.account_id,
            email=account.email,
            status=account.status.value,
            role=account.role.value,
            first_name=account.first_name,
            last_name=account.last_name,
            tax_id=account.tax_id,
            company_name=account.company_name,
            company_tax_id=account.company_tax_id,
            company_address=account.company_address,
            is_self_employed=account.is_self_employed,
            logo=account.logo,
            created_at=account.created_at.isoformat() if account.created_at else None,
        )


class CredentialsRequest(BaseModel):
    """Email/password pair used for registration and login.

    The email stays a plain string so syntax errors surface as field-scoped
    validation errors from the service instead of a generic 422.
    """

    email: str
    password: str


class SessionResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: PublicProfile


class VerificationRequest(BaseModel):
    code: str


class MessageResponse(BaseModel):
    message: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ForgotPasswordResponse(BaseModel):
    reset_token: str
    expires_in: int


class ResetPasswordRequest(BaseModel):
    reset_token: str
    new_password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int


class InviteRequest(BaseModel):
    email: str


class InviteResponse(BaseModel):
    email: EmailStr
    password: str


class PersonalDataRequest(BaseModel):
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    tax_id: str = Field(default="")


class CompanyDataRequest(BaseModel):
    company_name: str | None = None
    company_tax_id: str | None = None
    company_address: str | None = None
    is_self_employed: bool = False


def get_service(request: Request) -> CredentialService:
    """Resolve the `CredentialService` stored on the FastAPI application state."""
    service: CredentialService = request.app.state.credential_service
    return service


def _token_ttl(request: Request) -> int:
    return request.app.state.token_issuer.ttl_seconds


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: Request,
    payload: CredentialsRequest,
    service: CredentialService = Depends(get_service),
) -> SessionResponse:
    """Register a pending account and return a session for it."""
    try:
        result = service.register(payload.email, payload.password)
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return SessionResponse(
        token=result.token,
        expires_in=_token_ttl(request),
        user=PublicProfile.from_domain(result.account),
    )


@router.put("/validation", response_model=MessageResponse)
def verify_email(
    payload: VerificationRequest,
    account: Account = Depends(current_account),
    service: CredentialService = Depends(get_service),
) -> MessageResponse:
    """Confirm ownership of the account email with the 6-digit code."""
    try:
        service.verify_email(account, payload.code)
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Email verified successfully")


@router.post(
    "/validation/resend",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def resend_verification_code(
    account: Account = Depends(current_account),
    service: CredentialService = Depends(get_service),
) -> MessageResponse:
    """Issue a fresh verification code, restoring the full attempt budget."""
    try:
        service.reissue_verification_code(account)
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message="Verification code sent")


@router.post("/login", response_model=SessionResponse)
def login(
    request: Request,
    payload: CredentialsRequest,
    service: CredentialService = Depends(get_service),
) -> SessionResponse:
    try:
        result = service.login(payload.email, payload.password)
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return SessionResponse(
        token=result.token,
        expires_in=_token_ttl(request),
        user=PublicProfile.from_domain(result.account),
    )


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    service: CredentialService = Depends(get_service),
) -> ForgotPasswordResponse:
    """Issue a password reset token.

    Real delivery goes through the configured notifier; the token is also
    returned here so the caller can relay it.
    """
    try:
        token = service.forgot_password(payload.email)
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return ForgotPasswordResponse(
        reset_token=token,
        expires_in=service.reset_token_ttl_seconds,
    )


@router.put("/reset-password", response_model=TokenResponse)
def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    service: CredentialService = Depends(get_service),
) -> TokenResponse:
    try:
        token = service.reset_password(payload.reset_token, payload.new_password)
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return TokenResponse(token=token, expires_in=_token_ttl(request))


@router.post("/invite", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
def invite_colleague(
    payload: InviteRequest,
    account: Account = Depends(current_account),
    service: CredentialService = Depends(get_service),
) -> InviteResponse:
    """Create a guest account in the caller's company and return its one-time password."""
    try:
        result = service.invite_colleague(account, payload.email)
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return InviteResponse(email=result.email, password=result.generated_password)


@router.put("/register", response_model=AccountResponse)
def update_personal_data(
    payload: PersonalDataRequest,
    account: Account = Depends(current_account),
    service: CredentialService = Depends(get_service),
) -> AccountResponse:
    try:
        updated = service.update_personal_data(
            account,
            first_name=payload.first_name,
            last_name=payload.last_name,
            tax_id=payload.tax_id,
        )
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_domain(updated)


@router.patch("/company", response_model=AccountResponse)
def update_company_data(
    payload: CompanyDataRequest,
    account: Account = Depends(current_account),
    service: CredentialService = Depends(get_service),
) -> AccountResponse:
    try:
        updated = service.update_company_data(
            account,
            company_name=payload.company_name,
            company_tax_id=payload.company_tax_id,
            company_address=payload.company_address,
            is_self_employed=payload.is_self_employed,
        )
    except CredentialError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_domain(updated)


@router.get("/me", response_model=AccountResponse)
def get_me(
    account: Account = Depends(current_account),
    service: CredentialService = Depends(get_service),
) -> AccountResponse:
    """Return the profile of the authenticated account."""
    return AccountResponse.from_domain(service.get_current_account(account))


@router.delete("/me")
def delete_me(
    hard: bool = Query(default=False),
    account: Account = Depends(current_account),
    service: CredentialService = Depends(get_service),
) -> dict:
    """Soft-delete the authenticated account, or erase it when ``hard`` is set.

    ``hard=true`` replaces the older ``soft=false`` query parameter; soft deletion
    stays the default.
    """
    service.delete_account(account, hard=hard)
    return {}


def _http_error(exc: CredentialError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    if isinstance(exc, InvalidCredentials):
        status_code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(exc, NotFound):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, Conflict):
        status_code = status.HTTP_409_CONFLICT
    logger.debug("request failed with %s (%d)", exc.code, status_code)
    return HTTPException(status_code=status_code, detail=exc.to_dict())
