"""
QuantaPool CLI Tools
"""
