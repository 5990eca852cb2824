from fastapi import APIRouter, Depends, Request, status

from webscan.features.scan.exceptions import ValidationError
from webscan.features.scan.schemas.scan import ScanRequest
from webscan.features.scan.services.scan.scan_service import ScanService
from webscan.platform.logger import get_logger
from webscan.platform.response import api_response
from webscan.platform.utils.url_validator import validate_url

logger = get_logger(__name__)

router = APIRouter(tags=["scan"])


def get_scan_service(request: Request) -> ScanService:
    return request.app.state.scan_service


@router.post("/scan")
async def scan_url(
    payload: ScanRequest,
    scan_service: ScanService = Depends(get_scan_service),
):
    """
    Scan a URL for performance and accessibility issues.

    Returns the cached result when the URL was scanned within the expiry
    window; otherwise runs a fresh scan and waits for it.
    """
    is_valid, url, error_message = validate_url(payload.url)
    if not is_valid:
        logger.warning(f"Rejected scan request for {payload.url!r}: {error_message}")
        raise ValidationError(f"Invalid URL: {error_message}")

    logger.info(f"Scan requested for {url}")
    result = await scan_service.scan_url(url)

    return api_response(
        data=result.to_document(),
        status_code=status.HTTP_200_OK,
    )
