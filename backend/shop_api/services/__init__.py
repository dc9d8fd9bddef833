"""
Application services.

- domain: business rules (stock, cart, checkout, orders, kitchen, promo, settings)
- payments: Paymob gateway and payment workflow
- notifications: customer SMS
"""
