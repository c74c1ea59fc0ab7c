"""Models package."""

from .user import User
from .folder import Folder
from .test_case import TestCase
from .plan import Plan
from .plan_item import PlanItem
from .report_share_link import ReportShareLink
