import setuptools

with open('README.md', 'r') as fh:
    long_description = fh.read()

setuptools.setup(
    name='latentpls',
    version='20.10-1',
    author='BiRG @ Wright State University',
    author_email='foose.3@wright.edu',
    description='Partial Least Squares, Orthogonal PLS and Kernel OPLS with cross-validated component selection',
    long_description=long_description,
    long_description_content_type='text/markdown',
    keywords='metabolomics chemometrics partial-least-squares opls k-opls nipals',
    packages=setuptools.find_packages(),
    python_requires='>=3.6',
    install_requires=[
        'numpy>=1.11.0',
        'scipy>=0.18.0',
        'scikit-learn>=0.22.0',
        'joblib>=0.11'
    ],
    extras_require={
        'test': ['pytest', 'pandas']
    },
    classifiers=[
        'Natural Language :: English',
        'Intended Audience :: Science/Research',
        'Programming Language :: Python :: 3.6',
        'Programming Language :: Python :: 3.7',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
)
