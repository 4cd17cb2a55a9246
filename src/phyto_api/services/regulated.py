"""
Regulated-organism matching.

Flags species and disease candidates that match a static table of
quarantine pests, diseases and regulated invasive plants (EPPO A1/A2 and
EU priority lists). Matching is a case-insensitive substring lookup of each
organism's aliases in the candidate's name, scientific name and symptom
text; a match is binary.
"""

import logging
from dataclasses import dataclass
from typing import TypeVar

from phyto_api.core.config import Settings, get_settings
from phyto_api.models.diagnosis import (
    DiseaseCandidate,
    IdentificationCandidate,
    RegulatedAdvisory,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegulatedOrganism:
    """One entry of the regulated-organism table."""

    name: str
    eppo_code: str | None
    aliases: tuple[str, ...]


# =============================================================================
# Regulated organisms
# =============================================================================

REGULATED_ORGANISMS: tuple[RegulatedOrganism, ...] = (
    # Pests
    RegulatedOrganism("Xylella fastidiosa", "XYLEFA", ("xylella", "olive quick decline")),
    RegulatedOrganism("Popillia japonica", "POPIJA", ("popillia japonica", "japanese beetle")),
    RegulatedOrganism("Agrilus planipennis", "AGRLPL", ("agrilus planipennis", "emerald ash borer")),
    RegulatedOrganism("Cydalima perspectalis", "DPHNPE", ("cydalima perspectalis", "box tree moth")),
    RegulatedOrganism("Rhynchophorus ferrugineus", "RHYCFE", ("rhynchophorus ferrugineus", "red palm weevil")),
    RegulatedOrganism("Thaumetopoea pityocampa", "THAUPI", ("thaumetopoea pityocampa", "pine processionary")),
    RegulatedOrganism("Anoplophora glabripennis", "ANOLGL", ("anoplophora glabripennis", "asian longhorn beetle", "asian longhorned beetle")),
    RegulatedOrganism("Leptinotarsa decemlineata", "LPTNDE", ("leptinotarsa decemlineata", "colorado beetle", "colorado potato beetle")),
    RegulatedOrganism("Bursaphelenchus xylophilus", "BURSXY", ("bursaphelenchus xylophilus", "pine wood nematode", "pinewood nematode")),
    RegulatedOrganism("Globodera rostochiensis", "HETDRO", ("globodera", "potato cyst nematode", "golden nematode")),
    # Diseases
    RegulatedOrganism("Candidatus Liberibacter asiaticus", "LIBEAS", ("citrus greening", "huanglongbing", "liberibacter")),
    RegulatedOrganism("Xanthomonas citri", "XANTCI", ("citrus canker", "xanthomonas citri")),
    RegulatedOrganism("Erwinia amylovora", "ERWIAM", ("fire blight", "fireblight", "erwinia amylovora")),
    RegulatedOrganism("Phytophthora ramorum", "PHYTRA", ("sudden oak death", "phytophthora ramorum")),
    RegulatedOrganism("Ophiostoma novo-ulmi", "OPHINO", ("dutch elm", "ophiostoma novo-ulmi")),
    RegulatedOrganism("Hymenoscyphus fraxineus", "CHAAFR", ("ash dieback", "hymenoscyphus fraxineus")),
    RegulatedOrganism("Plum pox virus", "PPV000", ("plum pox", "sharka")),
    RegulatedOrganism("Ralstonia solanacearum", "RALSSO", ("ralstonia", "bacterial wilt")),
    RegulatedOrganism("Clavibacter sepedonicus", "CORBSE", ("potato ring rot", "clavibacter sepedonicus")),
    RegulatedOrganism("Grapevine flavescence dorée phytoplasma", "PHYP64", ("flavescence dorée", "flavescence doree")),
    RegulatedOrganism("Pseudocercospora fijiensis", "MYCOFI", ("black sigatoka", "fijiensis")),
    RegulatedOrganism("Citrus tristeza virus", "CTV000", ("tristeza",)),
    RegulatedOrganism("Tomato brown rugose fruit virus", "TOBRFV", ("tomato brown rugose", "tobrfv")),
    # Regulated invasive plants
    RegulatedOrganism("Ambrosia artemisiifolia", "AMBEL", ("ambrosia artemisiifolia", "common ragweed")),
    RegulatedOrganism("Heracleum mantegazzianum", "HERMZ", ("heracleum mantegazzianum", "giant hogweed")),
    RegulatedOrganism("Ailanthus altissima", "AILAL", ("ailanthus altissima", "tree of heaven")),
    RegulatedOrganism("Reynoutria japonica", "POLCU", ("reynoutria japonica", "fallopia japonica", "japanese knotweed")),
    RegulatedOrganism("Pontederia crassipes", "EICCR", ("eichhornia crassipes", "pontederia crassipes", "water hyacinth")),
    RegulatedOrganism("Solanum elaeagnifolium", "SOLEL", ("solanum elaeagnifolium", "silverleaf nightshade")),
)


Candidate = TypeVar("Candidate", IdentificationCandidate, DiseaseCandidate)


class RegulatedOrganismMatcher:
    """Annotates candidates that match a regulated organism."""

    def __init__(
        self,
        organisms: tuple[RegulatedOrganism, ...] = REGULATED_ORGANISMS,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        extra = tuple(
            RegulatedOrganism(keyword.strip(), None, (keyword.strip().lower(),))
            for keyword in settings.regulated_extra_keywords
            if keyword.strip()
        )
        self.organisms = organisms + extra

    def match(self, text: str) -> RegulatedOrganism | None:
        """Return the first organism whose alias occurs in ``text``."""
        haystack = text.lower()
        if not haystack.strip():
            return None
        for organism in self.organisms:
            if any(alias in haystack for alias in organism.aliases):
                return organism
        return None

    def match_candidate(self, candidate: IdentificationCandidate | DiseaseCandidate) -> RegulatedOrganism | None:
        fields = [candidate.name]
        if isinstance(candidate, IdentificationCandidate):
            fields.append(candidate.scientific_name)
        else:
            fields.extend(candidate.symptoms)
        return self.match(" | ".join(fields))

    def annotate(self, candidates: list[Candidate]) -> list[Candidate]:
        """
        Return new candidates with ``is_regulated`` set.

        Disease candidates additionally get the matched ``regulated_code``.
        """
        annotated = []
        for candidate in candidates:
            organism = self.match_candidate(candidate)
            if organism is None:
                annotated.append(candidate)
                continue

            logger.warning(f"Regulated organism matched: '{candidate.name}' -> {organism.name}")
            update: dict = {"is_regulated": True}
            if isinstance(candidate, DiseaseCandidate):
                update["regulated_code"] = organism.eppo_code
            annotated.append(candidate.model_copy(update=update))
        return annotated

    def build_advisory(
        self,
        plants: list[IdentificationCandidate],
        diseases: list[DiseaseCandidate],
    ) -> RegulatedAdvisory | None:
        """Advisory metadata for callers, or None when nothing is regulated."""
        matched: dict[str, RegulatedOrganism] = {}
        for candidate in [*plants, *diseases]:
            if not candidate.is_regulated:
                continue
            organism = self.match_candidate(candidate)
            if organism is not None:
                matched.setdefault(organism.name, organism)

        if not matched:
            return None

        names = list(matched)
        codes = [o.eppo_code for o in matched.values() if o.eppo_code]
        return RegulatedAdvisory(
            organisms=names,
            codes=codes,
            message=(
                f"Possible regulated organism detected ({', '.join(names)}). "
                "Do not move plant material and report the finding to your "
                "national plant protection organization."
            ),
        )
