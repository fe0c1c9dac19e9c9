# core/__init__.py

# Lightweight re-exports only; core.scanner pulls in integrations and is imported directly.
from .utils import setup_logging, extract_domain, normalize_url
from .models import Grade, Finding, ProbeResult, SectionOutcome, AssessmentResult
from .grading import grade_from_score
