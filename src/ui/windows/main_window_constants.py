from __future__ import annotations

DATASIGHT_STYLESHEET = """
        QMainWindow, QWidget {
            background-color: #F8F9FA;
            color: #202124;
            font-family: "Roboto", "Segoe UI", Arial, sans-serif;
        }
        QLabel#app_title {
            color: #1A73E8;
            font-size: 20px;
            font-weight: bold;
        }
        QLabel#memory_label {
            color: #34A853;
            font-weight: bold;
            padding-right: 12px;
        }
        QLabel#section_header {
            color: #5F6368;
            font-size: 13px;
            font-weight: bold;
            padding: 4px 0;
        }
        QLabel#loading_label {
            color: #1A73E8;
            font-size: 12px;
            font-weight: bold;
        }
        QProgressBar#loading_bar {
            background-color: #E8F0FE;
            border: none;
            border-radius: 3px;
        }
        QProgressBar#loading_bar::chunk { background-color: #4285F4; }
        QLabel#commentary_label {
            color: #5F6368;
            font-style: italic;
        }
        QLabel#placeholder_label {
            color: #80868B;
            padding: 24px;
        }
        QTextBrowser#chat_display, QTextBrowser#recommendations_view {
            background-color: #F1F3F4;
            border: 1px solid #DADCE0;
            border-radius: 6px;
            font-size: 14px;
        }
        QTextEdit#chat_input {
            background-color: #FFFFFF;
            border: 1px solid #DADCE0;
            font-size: 14px;
            padding: 8px;
            border-radius: 5px;
            max-height: 80px;
        }
        QTextEdit#chat_input:focus { border: 1px solid #4285F4; }
        QPushButton#send_button, QPushButton#upload_button {
            background-color: #1A73E8;
            color: #FFFFFF;
            border: none;
            border-radius: 5px;
            font-weight: bold;
        }
        QPushButton#send_button:disabled, QPushButton#upload_button:disabled {
            background-color: #DADCE0;
        }
        QPushButton#icon_button {
            background-color: #FFFFFF;
            border: 1px solid #DADCE0;
            border-radius: 5px;
        }
        QPushButton#icon_button:hover { border-color: #4285F4; }
        QPushButton#suggestion_item {
            background-color: #FFFFFF;
            border: 1px solid #DADCE0;
            border-radius: 6px;
            padding: 8px;
            text-align: left;
        }
        QPushButton#suggestion_item:hover { border-color: #4285F4; }
        QTabWidget::pane { border: 1px solid #DADCE0; border-radius: 6px; }
"""
