"""
IntegratePDF - Push extracted PDF data into Notion databases and Google Sheets.

Example:
    >>> from integratepdf.domains.push import PushOrchestrator
    >>> result = await orchestrator.push_extracted_data(destination_id, document_id, fields)
    >>> result.success
    True
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
