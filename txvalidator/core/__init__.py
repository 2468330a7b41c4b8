"""Validator core: configuration, ledger state and epoch processing"""
