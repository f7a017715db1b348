"""
API HTTP para GitGrub.

Esta capa expone endpoints REST que usan el core interno (gitgrub) para
recetas, likes, follows, perfiles e imágenes.

La API está diseñada para ser consumida por:
- UI web (el front de GitGrub)
- Scripts de automatización
"""
