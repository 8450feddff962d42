"""
Chain readers and signers
"""
