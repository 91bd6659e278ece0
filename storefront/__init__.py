"""Storefront order lifecycle and payment reconciliation service"""
