"""
Campaign Service Contract Module

- data_contract.py: model re-exports and test data factories
"""
