import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fitledger.db")
SQLALCHEMY_DATABASE_URI = DATABASE_URL

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Overpayment allowed when recording a payment against the remaining balance
PAYMENT_TOLERANCE: Decimal = Decimal(os.getenv("PAYMENT_TOLERANCE", "0.01"))

PACKAGE_EXPIRING_SOON_DAYS: int = int(os.getenv("PACKAGE_EXPIRING_SOON_DAYS", 14))
