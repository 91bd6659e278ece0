"""Order services"""
