import PyInstaller.__main__
import os
import customtkinter

# Locate the graphics library to include it in the package
ctk_path = os.path.dirname(customtkinter.__file__)

print("--- BUILDING: COURSE ANALYSIS REPORT ---")

PyInstaller.__main__.run([
    'src/app.py',                       # GUI
    '--name=Course_Analysis_Report',    # .exe name
    '--onefile',
    '--windowed',
    '--paths=src',                      # api/ and utils/ live next to app.py
    '--add-data', f'{ctk_path}{os.pathsep}customtkinter/',
    '--clean',                          # Clear cache
    '--noconfirm',
])

print("\n--- BUILD FINISHED ---")
print("Copy config.ini and db.env next to the executable in 'dist/'")
