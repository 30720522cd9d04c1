import hashlib
import json
import logging
import re

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r'^data:.*?;base64,')

RECEIPT_PROMPT = """Analyze this receipt image and extract the following information. Return ONLY a valid JSON object with no additional text or markdown formatting.

{
  "amount": <total amount as a number, use the final total/grand total if available>,
  "merchant": "<merchant/store name>",
  "date": "<date in YYYY-MM-DD format if visible, otherwise null>",
  "confidence": "<high if clearly readable, low if partially readable, unreadable if cannot extract>",
  "items_detected": <number of line items detected>,
  "currency": "<currency code if detected, default MYR>"
}

Important:
- For amount, extract the TOTAL/GRAND TOTAL, not subtotals
- If multiple totals exist, use the largest final amount
- If you cannot read the receipt clearly, set confidence to "unreadable" and amount to null
- Return ONLY the JSON object, no explanation"""


def receipt_hash(image):
    """SHA-256 of the base64 payload with any data-URL prefix removed."""
    payload = DATA_URL_PREFIX.sub('', image or '')
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


def unreadable(error):
    return {
        'success': False,
        'amount': None,
        'merchant': None,
        'date': None,
        'confidence': 'unreadable',
        'items_detected': 0,
        'currency': 'MYR',
        'error': error,
    }


def parse_extraction(content):
    text = (content or '').strip()
    if text.startswith('```'):
        text = re.sub(r'```(json)?\n?', '', text).replace('```', '').strip()
    data = json.loads(text)
    confidence = data.get('confidence') or 'low'
    if confidence not in ('high', 'low', 'unreadable'):
        confidence = 'low'
    return {
        'success': True,
        'amount': data.get('amount'),
        'merchant': data.get('merchant') or None,
        'date': data.get('date') or None,
        'confidence': confidence,
        'items_detected': data.get('items_detected') or 0,
        'currency': data.get('currency') or 'MYR',
        'raw_response': content,
    }


def extract_receipt_data(image):
    """
    Ask the vision model for the receipt total, merchant and date.

    Never raises: transport errors, non-2xx answers and unparsable content
    all come back as an ``unreadable`` result so the claim falls back to
    manual approval.
    """
    if not settings.OPENAI_API_KEY:
        return unreadable('OpenAI API key not configured')

    image_url = image if image.startswith('data:') else f'data:image/jpeg;base64,{image}'
    body = {
        'model': settings.OPENAI_MODEL,
        'messages': [{
            'role': 'user',
            'content': [
                {'type': 'text', 'text': RECEIPT_PROMPT},
                {'type': 'image_url', 'image_url': {'url': image_url, 'detail': 'high'}},
            ],
        }],
        'max_tokens': 500,
        'temperature': 0.1,
    }
    headers = {'Authorization': f'Bearer {settings.OPENAI_API_KEY}'}

    try:
        response = requests.post(
            settings.OPENAI_API_URL, json=body, headers=headers,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        content = response.json()['choices'][0]['message']['content']
    except requests.exceptions.Timeout:
        logger.warning("Receipt extraction timed out")
        return unreadable('Receipt extraction timed out')
    except (requests.exceptions.RequestException, KeyError, IndexError, ValueError) as e:
        logger.warning(f"Receipt extraction request failed: {e}")
        return unreadable(str(e))

    try:
        return parse_extraction(content)
    except (ValueError, AttributeError) as e:
        logger.warning(f"Failed to parse receipt extraction ({e}): {content!r}")
        result = unreadable('Failed to parse AI response')
        result['raw_response'] = content
        return result
