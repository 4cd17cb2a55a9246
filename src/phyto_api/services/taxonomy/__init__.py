"""
Taxonomy Lookups - resolve partial plant names to accepted taxa.

Used by the fallback chain, in order: GBIF, then iNaturalist.
"""

from .base import TaxonMatch, TaxonomyLookup, TaxonomyLookupError
from .gbif import GBIFLookup
from .inaturalist import INaturalistLookup

__all__ = [
    "GBIFLookup",
    "INaturalistLookup",
    "TaxonMatch",
    "TaxonomyLookup",
    "TaxonomyLookupError",
]
