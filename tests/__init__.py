"""
Test suite for v10r vectorizer service.

This package contains comprehensive tests for all v10r components:
- Unit tests for individual components
- Integration tests for API interactions
- End-to-end tests for complete workflows
- Performance and load tests
""" 