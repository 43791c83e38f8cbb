"""SAP Server — Database Models"""

from sap_server.models.prompt_tracking import PromptTracking
from sap_server.models.global_stats import GlobalStats
from sap_server.models.user_payment import UserPayment

__all__ = ["PromptTracking", "GlobalStats", "UserPayment"]
