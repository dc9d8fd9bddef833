"""
HTTP routers grouped by audience: storefront, admin, payments and public.
"""
