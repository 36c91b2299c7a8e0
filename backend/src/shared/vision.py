"""
Vision analysis for sobriety checks, backed by Amazon Bedrock.

The model is asked for a JSON verdict but may answer with prose, a fenced
code block, or nothing useful at all. Everything that is not a clear
passed/failed verdict is treated as failed.
"""
import json
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from decimal import Decimal
from typing import Any, Dict, Optional, Union
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ReadTimeoutError, ConnectTimeoutError
from .config import config
from .logging import logger
from .models import AnalysisFailure, SobrietyStatus, Verdict

IMPAIRMENT_PROMPT = """Analyze this image for signs of impairment or intoxication. Check for:
1. Eye movement patterns (redness, dilation, unusual patterns)
2. Head stability and posture
3. Skin color abnormalities
4. Overall alertness and focus

Respond with a JSON object: { "status": "passed" | "failed", "analysis": "detailed findings" }"""

_JSON_FENCE = re.compile(r'```(?:json)?\s*(\{.*?\})\s*```', re.DOTALL)
_JSON_OBJECT = re.compile(r'\{.*\}', re.DOTALL)

_bedrock_client = None


def get_bedrock_client():
    """Get or create Bedrock Runtime client with bounded timeouts."""
    global _bedrock_client
    if _bedrock_client is None:
        _bedrock_client = boto3.client(
            'bedrock-runtime',
            region_name=config.AWS_REGION,
            config=BotoConfig(
                connect_timeout=5,
                read_timeout=config.ANALYSIS_TIMEOUT_SECONDS,
                retries={'max_attempts': 1}
            )
        )
    return _bedrock_client


def detect_image_format(image_bytes: bytes) -> str:
    """Bedrock image format from magic bytes; defaults to jpeg."""
    if image_bytes.startswith(b'\x89PNG'):
        return 'png'
    if image_bytes.startswith(b'GIF8'):
        return 'gif'
    if image_bytes[:4] == b'RIFF' and image_bytes[8:12] == b'WEBP':
        return 'webp'
    return 'jpeg'


class BedrockVisionAnalyzer:
    """Sends the check image and the impairment prompt to a Bedrock model."""

    def __init__(self, client=None, model_id: str = None):
        self._client = client
        self.model_id = model_id or config.VISION_MODEL_ID

    @property
    def client(self):
        if self._client is None:
            self._client = get_bedrock_client()
        return self._client

    def analyze(self, image_bytes: bytes) -> str:
        """
        Run the model on one image.

        Returns:
            The model's raw text answer
        """
        response = self.client.converse(
            modelId=self.model_id,
            messages=[{
                'role': 'user',
                'content': [
                    {'text': IMPAIRMENT_PROMPT},
                    {'image': {
                        'format': detect_image_format(image_bytes),
                        'source': {'bytes': image_bytes}
                    }}
                ]
            }],
            inferenceConfig={'maxTokens': 512, 'temperature': 0}
        )
        blocks = response.get('output', {}).get('message', {}).get('content', [])
        text = ''.join(block.get('text', '') for block in blocks)
        logger.info(f"Vision model {self.model_id} returned {len(text)} chars")
        return text


def _load_json_object(text: str) -> Optional[Dict[str, Any]]:
    candidates = [text.strip()]
    fenced = _JSON_FENCE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    embedded = _JSON_OBJECT.search(text)
    if embedded:
        candidates.append(embedded.group(0))

    for candidate in candidates:
        try:
            value = json.loads(candidate, parse_float=Decimal)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(value, dict):
            return value
    return None


def parse_verdict(raw: Union[str, Dict[str, Any], None]) -> Verdict:
    """
    Turn a model answer into a Verdict.

    A verdict counts as parsed only when it is an object whose status is
    exactly "passed" or "failed". Anything else fails closed, keeping the
    raw text as the findings.
    """
    if isinstance(raw, dict):
        data = raw
        raw_text = json.dumps(raw, default=str)
    elif isinstance(raw, str) and raw.strip():
        data = _load_json_object(raw)
        raw_text = raw
    else:
        return Verdict(
            SobrietyStatus.FAILED,
            'Vision analysis returned an empty response',
            parsed=False,
            failure_reason=AnalysisFailure.MALFORMED
        )

    status = str(data.get('status', '')).strip().lower() if data else ''
    if status not in (SobrietyStatus.PASSED, SobrietyStatus.FAILED):
        return Verdict(
            SobrietyStatus.FAILED,
            raw_text,
            parsed=False,
            failure_reason=AnalysisFailure.MALFORMED
        )

    findings = data.get('analysis') or data.get('findings') or raw_text
    return Verdict(status, findings)


def analyze_with_timeout(analyzer, image_bytes: bytes, timeout: float = None) -> Verdict:
    """
    Analyze an image, giving up after `timeout` seconds.

    Never raises and never returns passed on error: an unreachable service,
    a timeout or an unreadable answer all come back as a failed Verdict.
    """
    if timeout is None:
        timeout = config.ANALYSIS_TIMEOUT_SECONDS

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(analyzer.analyze, image_bytes)
    try:
        raw = future.result(timeout=timeout)
    except (FuturesTimeout, ReadTimeoutError, ConnectTimeoutError):
        future.cancel()
        logger.warning(f"Vision analysis exceeded {timeout}s")
        return Verdict(
            SobrietyStatus.FAILED,
            f'Vision analysis did not complete within {timeout:g} seconds',
            parsed=False,
            failure_reason=AnalysisFailure.TIMEOUT
        )
    except Exception as e:
        logger.error(f"Vision analysis unavailable: {e}")
        return Verdict(
            SobrietyStatus.FAILED,
            f'Vision analysis unavailable: {e}',
            parsed=False,
            failure_reason=AnalysisFailure.UNAVAILABLE
        )
    finally:
        # Do not wait on an overrunning call; its result is discarded
        executor.shutdown(wait=False)

    return parse_verdict(raw)
