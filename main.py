from src.datasight.app.datasight_app import DataSightApp


def main():
    """
    Main entry point for the DataSight AI application.
    """
    datasight_instance = DataSightApp()
    datasight_instance.run()


if __name__ == "__main__":
    main()
