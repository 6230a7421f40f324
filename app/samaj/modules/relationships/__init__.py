"""
User relationships (account to account) and the accepted-relationship family tree.
"""
