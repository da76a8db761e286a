"""
Logging filter that keeps vendor API keys and user credentials out of logs

Vendor error bodies and httpx exceptions can echo request headers, and users
paste keys into prompts by mistake, so every record passes through here.
"""
import logging
import re


class SecretRedactionFilter(logging.Filter):
    """
    Redacts:
    - fal.ai "Key ..." and "Bearer ..." authorization values
    - x-api-key / Ocp-Apim-Subscription-Key header values
    - key_value, api_key, password and token fields
    """

    PATTERNS = [
        re.compile(r'(authorization["\']?\s*[:=]\s*["\']?(?:key|bearer)\s+)([A-Za-z0-9_\-\.:]{8,})', re.IGNORECASE),
        re.compile(r'(\b(?:key|bearer)\s+)([A-Za-z0-9_\-\.]{20,}(?::[A-Za-z0-9_\-]+)?)', re.IGNORECASE),
        re.compile(r'((?:x-api-key|ocp-apim-subscription-key)["\']?\s*[:=]\s*["\']?)([^\s"\',]{8,})', re.IGNORECASE),
        re.compile(r'((?:key_value|api_key|apikey|secret_key)["\']?\s*[:=]\s*["\']?)([^\s"\',]{4,})', re.IGNORECASE),
        re.compile(r'((?:password|passwd|access_token)["\']?\s*[:=]\s*["\']?)([^\s"\',]{4,})', re.IGNORECASE),
    ]

    REPLACEMENT = r'\1***REDACTED***'

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self.redact(v) if isinstance(v, str) else v for k, v in record.args.items()}
            else:
                record.args = tuple(self.redact(a) if isinstance(a, str) else a for a in record.args)
        return True

    def redact(self, text: str) -> str:
        for pattern in self.PATTERNS:
            text = pattern.sub(self.REPLACEMENT, text)
        return text
