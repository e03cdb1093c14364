from abc import ABC, abstractmethod
from typing import Optional

from ..schema import RawDrugAttributes


class DrugSource(ABC):
    """Authoritative upstream for drug attributes.

    lookup returns None when the upstream has no match and raises
    TransientError when it cannot be reached. The two must stay distinct:
    only a definite miss may be reported to the caller as not found.
    """

    name = "source"

    @abstractmethod
    def lookup(self, name: str) -> Optional[RawDrugAttributes]:
        raise NotImplementedError
