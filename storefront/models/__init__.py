"""Order data models"""
