# services/severity.py
from models.proctoring import EventType, InferenceResult, Severity

# Lower bound of each bucket, highest first
SEVERITY_THRESHOLDS = [
    (80, Severity.CRITICAL),
    (60, Severity.HIGH),
    (40, Severity.MEDIUM),
]

def severity_of(score: float) -> Severity:
    for threshold, severity in SEVERITY_THRESHOLDS:
        if score >= threshold:
            return severity
    return Severity.LOW

def event_type_of(mobile_detected: bool) -> EventType:
    return EventType.MOBILE_DETECTION if mobile_detected else EventType.FACE_DETECTION

def describe(result: InferenceResult) -> str:
    if result.message:
        return result.message
    if result.mobile_detected:
        return "Mobile device detected during monitoring"
    return "Face detection check"
