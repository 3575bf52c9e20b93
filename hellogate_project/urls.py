"""
Root URL configuration for the hellogate project.
"""
from django.urls import include, path

urlpatterns = [
    path('', include('gate.urls')),
    path('', include('greeting.urls')),
]

# Custom error handlers
handler404 = 'hellogate_project.error_handlers.handler404'
handler500 = 'hellogate_project.error_handlers.handler500'
handler403 = 'hellogate_project.error_handlers.handler403'
handler400 = 'hellogate_project.error_handlers.handler400'
