import os
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "videos")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_BASE_URL = os.getenv("RESEND_BASE_URL", "https://api.resend.com")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Clipper <clipper@clipper.lucasmontano.com>")
PAYMENTS_CONTACT_EMAIL = os.getenv("PAYMENTS_CONTACT_EMAIL", "comercial@lucasmontano.com")

# Dollars per 1,000 views, per clip category
RATE_PER_THOUSAND_CATEGORY_A = float(os.getenv("RATE_PER_THOUSAND_CATEGORY_A", "0.50"))
RATE_PER_THOUSAND_CATEGORY_B = float(os.getenv("RATE_PER_THOUSAND_CATEGORY_B", "1.00"))
PAYMENT_CAP = float(os.getenv("PAYMENT_CAP", "100.00"))

OUTPUT_DIR = os.getenv("OUTPUT_DIR", "/tmp/clipper_reports")
