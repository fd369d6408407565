"""
Test suite for the Asset File Importer.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_import_orchestrator_service.py -v
"""
