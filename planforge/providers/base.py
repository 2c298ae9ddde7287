from abc import ABC, abstractmethod

class PlanProvider(ABC):
    @abstractmethod
    def get_plan(self) -> str:
        """
        Returns the markdown text of a test plan.
        """
        pass
