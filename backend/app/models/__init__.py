from app.models.base import Base
from app.models.expense import Expense
from app.models.history import ClassificationHistory, ClassificationTrigger

__all__ = [
    "Base",
    "Expense",
    "ClassificationHistory",
    "ClassificationTrigger",
]
