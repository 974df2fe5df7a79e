# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# Punto de entrada para servidores WSGI como Gunicorn.
#
# USO:
#   APPCENAR_ENV=production APPCENAR_SECRET_KEY=... gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/           <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── appcenar/        <- Paquete Python
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# Primer administrador:
#   flask --app wsgi crear-admin
# ==============================================================================

from appcenar.main import app

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
