"""
shopemx — Маркетплейс передачи прав на произведения (ShopEMX).

Регистрация и двухфакторная верификация, KYC-заявки, продажа
исключительных прав и лицензий с генерацией договора в PDF.
"""

__version__ = "0.4.0"
