"""AppCenar - pedidos y delivery de comida (clientes, comercios, deliveries y administradores)."""

__version__ = '1.0.0'
