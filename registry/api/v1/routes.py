"""
API v1 routes.

Defines the HTTP endpoints for the registry signup lifecycle:
- POST /v1/register - Submit the signup form
- GET /v1/verify-email - Verification link target (redirects to status page)
- GET /v1/unsubscribe - Unsubscribe link target (redirects to status page)
- POST /v1/jobs/send-verification-reminders - Periodic reminder/expiry run
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from registry.api.dependencies import (
    get_client_ip,
    get_registration_service,
    get_reminder_scheduler,
    get_unsubscribe_service,
    get_verification_service,
    require_job_token,
)
from registry.api.models import ErrorResponse, RegisterRequest, RegisterResponse, ReminderRunResponse
from registry.config.settings import Settings, get_settings
from registry.domain.exceptions import RateLimitExceeded, ValidationFailed
from registry.domain.ports import UnsubscribeResult, VerifyResult
from registry.domain.registration import RegistrationService
from registry.domain.reminders import ReminderScheduler
from registry.domain.unsubscribe import UnsubscribeService
from registry.domain.verification import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])

RATE_LIMIT_MESSAGE = "Too many requests. Try again later."
GENERIC_ERROR_MESSAGE = "Something went wrong"

# Status page values; NOT_FOUND is shown as "invalid" so consumed and
# never-issued tokens look the same
VERIFY_STATUS = {
    VerifyResult.SUCCESS: "success",
    VerifyResult.ALREADY_VERIFIED: "already-verified",
    VerifyResult.EXPIRED: "expired",
    VerifyResult.NOT_FOUND: "invalid",
    VerifyResult.INVALID: "invalid",
}

UNSUBSCRIBE_STATUS = {
    UnsubscribeResult.SUCCESS: "success",
    UnsubscribeResult.INVALID: "invalid",
    UnsubscribeResult.ERROR: "error",
}


def _status_page(settings: Settings, page: str, params: dict[str, str]) -> RedirectResponse:
    url = f"{settings.site_url.rstrip('/')}/{page}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.post(
    "/register",
    response_model=RegisterResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Validation error"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Unexpected failure"},
    },
    summary="Join the registry",
    description="Submit the signup form. A verification link is emailed to the address. "
    "The response is identical for new, pending and already verified addresses.",
)
def register(
    request_data: RegisterRequest,
    request: Request,
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterResponse | JSONResponse:
    """
    Register a signup submission.

    - **email**: Email address to verify
    - **zipCode**: 5-digit postal code
    - **website**: Honeypot, leave empty
    """
    origin = get_client_ip(request)
    try:
        service.register(request_data.to_submission(), origin)
    except ValidationFailed as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": e.first_message}
        )
    except RateLimitExceeded:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS, content={"error": RATE_LIMIT_MESSAGE}
        )
    except Exception:
        logger.exception("Registration failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": GENERIC_ERROR_MESSAGE},
        )
    return RegisterResponse(success=True)


@router.get(
    "/verify-email",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
    summary="Verify email address",
    description="Target of the emailed verification link. Redirects to the site's "
    "verify page with the outcome in the status query parameter.",
)
def verify_email(
    request: Request,
    token: str | None = Query(default=None),
    service: VerificationService = Depends(get_verification_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    try:
        outcome = service.verify(
            token,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except Exception:
        logger.exception("Verification error")
        return _status_page(settings, "verify", {"status": "error"})

    params = {"status": VERIFY_STATUS[outcome.result]}
    if outcome.result is VerifyResult.SUCCESS and outcome.first_name:
        params["name"] = outcome.first_name
    return _status_page(settings, "verify", params)


@router.get(
    "/unsubscribe",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
    summary="Unsubscribe from updates",
    description="Target of the emailed unsubscribe link. Redirects to the site's "
    "unsubscribe page with the outcome in the status query parameter.",
)
def unsubscribe(
    token: str | None = Query(default=None),
    service: UnsubscribeService = Depends(get_unsubscribe_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    try:
        result = service.unsubscribe(token)
    except Exception:
        logger.exception("Unsubscribe error")
        result = UnsubscribeResult.ERROR
    return _status_page(settings, "unsubscribe", {"status": UNSUBSCRIBE_STATUS[result]})


@router.post(
    "/jobs/send-verification-reminders",
    response_model=ReminderRunResponse,
    dependencies=[Depends(require_job_token)],
    responses={
        401: {"description": "Missing bearer token"},
        403: {"description": "Wrong bearer token"},
        500: {"description": "Job failed"},
    },
    summary="Run reminder and expiry passes",
    description="Called periodically (e.g. daily cron) with the configured job secret "
    "as a bearer token. Safe to re-run.",
)
def send_verification_reminders(
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),
) -> ReminderRunResponse | JSONResponse:
    try:
        summary = scheduler.run()
    except Exception:
        logger.exception("Reminder job failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Reminder job failed"},
        )
    return ReminderRunResponse(**summary.as_dict())
