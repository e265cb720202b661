# services/inference_client.py
from typing import Any, Dict, Tuple
from pydantic import ValidationError
import httpx
import logging

import config
from errors import UpstreamFailure
from models.proctoring import InferenceResult

logger = logging.getLogger(__name__)


class InferenceClient:
    """Client for the face/mobile detection service.

    Every failure mode (timeout, transport error, non-2xx status, body that is
    not the expected schema) surfaces as UpstreamFailure so callers can degrade
    a single capture without special-casing httpx.
    """

    def __init__(self, base_url: str = None, timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or config.INFERENCE_URL).rstrip("/")
        self.timeout = config.INFERENCE_TIMEOUT if timeout is None else timeout
        self.transport = transport

    async def analyze_frame(
        self, image: bytes, content_type: str, filename: str = "capture.jpg"
    ) -> Tuple[InferenceResult, Dict[str, Any]]:
        """Score one frame.

        Returns the validated result and the payload as received, which may
        carry fields beyond the ones scored here.
        """
        url = f"{self.base_url}/ml/check_face"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, files={"image": (filename, image, content_type)})
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Inference service timed out after {self.timeout}s: {str(e)}")
            raise UpstreamFailure("Inference service timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Inference service HTTP error {e.response.status_code}: {e.response.text[:200]}")
            raise UpstreamFailure(f"Inference service returned {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Inference service request error: {str(e)}")
            raise UpstreamFailure("Inference service unreachable") from e
        except ValueError as e:
            logger.error(f"Inference service returned invalid JSON: {str(e)}")
            raise UpstreamFailure("Inference service returned invalid JSON") from e

        if not isinstance(payload, dict):
            logger.error(f"Inference service returned unexpected payload: {payload!r}")
            raise UpstreamFailure("Inference service returned an unexpected payload")
        try:
            result = InferenceResult(**payload)
        except ValidationError as e:
            logger.error(f"Inference service payload failed validation: {str(e)}")
            raise UpstreamFailure("Inference service returned a malformed payload") from e
        logger.info(f"Inference result: score={result.cheating_score}, mobile={result.mobile_detected}")
        return result, payload
