"""
Display names for heatmap axes, fed by the proxy's mapping endpoints.
Codes without a mapping are shown as-is.
"""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class DisplayNames:
    antibiotics: Dict[str, str] = field(default_factory=dict)   # column name -> simple name
    organisms: Dict[str, str] = field(default_factory=dict)     # lower-case code -> name

    @classmethod
    def from_client(cls, client) -> "DisplayNames":
        return cls(antibiotics=client.antibiotic_mappings(),
                   organisms=client.organism_mappings())

    def antibiotic(self, column: str) -> str:
        return self.antibiotics.get(column, column)

    def organism(self, code: str) -> str:
        if not code:
            return code
        return self.organisms.get(code.lower(), code)
