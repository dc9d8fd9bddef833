"""
Crumbled shop API: storefront, checkout and kitchen back office.
"""
