"""
gitgrub
=======

Núcleo del cliente GitGrub (recetas sociales con forks y versiones).

El estado durable y las reglas de negocio viven en Supabase; este paquete
contiene la lógica del lado del cliente: consultas, toggles optimistas,
búsqueda y el cache local de imágenes.
"""

__version__ = "0.1.0"
