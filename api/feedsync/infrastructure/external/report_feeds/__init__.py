"""
Integracion con los feeds ATOM del report server.

- url_templater: reescritura de URLs plantilla (limpieza, fechas, ubicaciones, detalle)
- feed_client: GET autenticado con credenciales Windows
- entry_parser: XML de entradas -> lista de mapas de propiedades
- service_document: lectura de documentos de servicio (.atomsvc)

Todo lo que no hace I/O se mantiene puro para poder testearlo facilmente.
"""
