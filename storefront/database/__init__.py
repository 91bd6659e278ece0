"""Order storage"""
