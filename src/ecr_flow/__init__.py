"""FHIR Encounter discovery and eCRNow case-reporting submission."""

__version__ = "0.1.0"
