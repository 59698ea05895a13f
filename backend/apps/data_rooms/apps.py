from django.apps import AppConfig


class DataRoomsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.data_rooms'
    verbose_name = 'Data Rooms'
